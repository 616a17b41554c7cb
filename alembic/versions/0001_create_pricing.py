"""Create the versioned pricing schema.

Versions, hierarchical configs, zone fees, time / weather / event
multipliers, surge thresholds, the audit log and the read-only pricing
zones table.

Revision ID: 0001_create_pricing
"""

from alembic import op

revision = "0001_create_pricing"
down_revision = None
branch_labels = None
depends_on = None


def _run(script: str) -> None:
    """Execute a script one statement at a time; asyncpg prepares each
    statement and rejects multi-command strings."""
    for statement in script.split(";"):
        if statement.strip():
            op.execute(statement)


def upgrade():
    _run("""
    CREATE TYPE pricing_version_status AS ENUM ('draft', 'active', 'archived', 'ab_test');
    CREATE TYPE pricing_audit_action AS ENUM (
      'create', 'update', 'delete', 'activate', 'archive', 'clone'
    );
    """)

    _run("""
    CREATE TABLE IF NOT EXISTS pricing_config_versions (
      id UUID PRIMARY KEY,
      version_number INTEGER NOT NULL UNIQUE,
      name VARCHAR(100) NOT NULL,
      description TEXT,
      status pricing_version_status NOT NULL DEFAULT 'draft',
      ab_test_percentage INTEGER,
      effective_from TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      effective_until TIMESTAMP WITH TIME ZONE,
      created_by UUID,
      approved_by UUID,
      approved_at TIMESTAMP WITH TIME ZONE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      CONSTRAINT chk_ab_percentage CHECK (
        ab_test_percentage IS NULL OR (ab_test_percentage >= 0 AND ab_test_percentage <= 100)
      )
    );
    CREATE UNIQUE INDEX IF NOT EXISTS uq_single_active_version
      ON pricing_config_versions (status) WHERE status = 'active';
    """)

    _run("""
    CREATE TABLE IF NOT EXISTS pricing_configs (
      id UUID PRIMARY KEY,
      version_id UUID NOT NULL REFERENCES pricing_config_versions(id) ON DELETE CASCADE,
      country_id UUID,
      region_id UUID,
      city_id UUID,
      zone_id UUID,
      ride_type_id UUID,
      base_fare NUMERIC(10,2),
      per_km_rate NUMERIC(10,4),
      per_minute_rate NUMERIC(10,4),
      minimum_fare NUMERIC(10,2),
      booking_fee NUMERIC(10,2),
      platform_commission_pct NUMERIC(5,2),
      driver_incentive_pct NUMERIC(5,2),
      surge_min_multiplier NUMERIC(4,2),
      surge_max_multiplier NUMERIC(4,2),
      tax_rate_pct NUMERIC(5,2),
      tax_inclusive BOOLEAN,
      cancellation_fees JSONB,
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      CONSTRAINT chk_surge_range CHECK (
        surge_min_multiplier IS NULL OR surge_max_multiplier IS NULL
        OR surge_min_multiplier <= surge_max_multiplier
      ),
      CONSTRAINT chk_tax_rate CHECK (
        tax_rate_pct IS NULL OR (tax_rate_pct >= 0 AND tax_rate_pct <= 100)
      )
    );
    CREATE INDEX IF NOT EXISTS idx_pricing_configs_version ON pricing_configs (version_id);
    """)

    _run("""
    CREATE TABLE IF NOT EXISTS zone_fees (
      id UUID PRIMARY KEY,
      version_id UUID NOT NULL REFERENCES pricing_config_versions(id) ON DELETE CASCADE,
      zone_id UUID NOT NULL,
      fee_type VARCHAR(50) NOT NULL,
      ride_type_id UUID,
      amount NUMERIC(10,2) NOT NULL,
      is_percentage BOOLEAN NOT NULL DEFAULT FALSE,
      applies_pickup BOOLEAN NOT NULL DEFAULT TRUE,
      applies_dropoff BOOLEAN NOT NULL DEFAULT TRUE,
      schedule JSONB,
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      CONSTRAINT chk_zone_fee_applies CHECK (applies_pickup OR applies_dropoff)
    );
    CREATE INDEX IF NOT EXISTS idx_zone_fees_version_zone ON zone_fees (version_id, zone_id);
    """)

    _run("""
    CREATE TABLE IF NOT EXISTS time_multipliers (
      id UUID PRIMARY KEY,
      version_id UUID NOT NULL REFERENCES pricing_config_versions(id) ON DELETE CASCADE,
      country_id UUID,
      region_id UUID,
      city_id UUID,
      name VARCHAR(100) NOT NULL,
      days_of_week JSONB NOT NULL DEFAULT '[0,1,2,3,4,5,6]',
      start_time VARCHAR(5) NOT NULL,
      end_time VARCHAR(5) NOT NULL,
      multiplier NUMERIC(4,2) NOT NULL,
      priority INTEGER NOT NULL DEFAULT 0,
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      CONSTRAINT chk_time_multiplier_positive CHECK (multiplier > 0)
    );
    CREATE INDEX IF NOT EXISTS idx_time_multipliers_version ON time_multipliers (version_id);

    CREATE TABLE IF NOT EXISTS weather_multipliers (
      id UUID PRIMARY KEY,
      version_id UUID NOT NULL REFERENCES pricing_config_versions(id) ON DELETE CASCADE,
      country_id UUID,
      region_id UUID,
      city_id UUID,
      weather_condition VARCHAR(20) NOT NULL,
      multiplier NUMERIC(4,2) NOT NULL,
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      CONSTRAINT chk_weather_multiplier_positive CHECK (multiplier > 0)
    );
    CREATE INDEX IF NOT EXISTS idx_weather_multipliers_version
      ON weather_multipliers (version_id, weather_condition);

    CREATE TABLE IF NOT EXISTS event_multipliers (
      id UUID PRIMARY KEY,
      version_id UUID NOT NULL REFERENCES pricing_config_versions(id) ON DELETE CASCADE,
      zone_id UUID,
      city_id UUID,
      event_name VARCHAR(200) NOT NULL,
      event_type VARCHAR(50) NOT NULL,
      starts_at TIMESTAMP WITH TIME ZONE NOT NULL,
      ends_at TIMESTAMP WITH TIME ZONE NOT NULL,
      pre_event_minutes INTEGER NOT NULL DEFAULT 120,
      post_event_minutes INTEGER NOT NULL DEFAULT 120,
      multiplier NUMERIC(4,2) NOT NULL,
      expected_demand_increase INTEGER,
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      CONSTRAINT chk_event_window CHECK (ends_at >= starts_at),
      CONSTRAINT chk_event_multiplier_positive CHECK (multiplier > 0)
    );
    CREATE INDEX IF NOT EXISTS idx_event_multipliers_version_dates
      ON event_multipliers (version_id, starts_at, ends_at);

    CREATE TABLE IF NOT EXISTS surge_thresholds (
      id UUID PRIMARY KEY,
      version_id UUID NOT NULL REFERENCES pricing_config_versions(id) ON DELETE CASCADE,
      country_id UUID,
      region_id UUID,
      city_id UUID,
      demand_supply_ratio_min NUMERIC(6,2) NOT NULL,
      demand_supply_ratio_max NUMERIC(6,2),
      multiplier NUMERIC(4,2) NOT NULL,
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      CONSTRAINT chk_surge_ratio_range CHECK (
        demand_supply_ratio_max IS NULL OR demand_supply_ratio_max > demand_supply_ratio_min
      )
    );
    CREATE INDEX IF NOT EXISTS idx_surge_thresholds_version ON surge_thresholds (version_id);
    """)

    _run("""
    CREATE TABLE IF NOT EXISTS pricing_audit_logs (
      id UUID PRIMARY KEY,
      admin_id UUID,
      action pricing_audit_action NOT NULL,
      entity_type VARCHAR(50) NOT NULL,
      entity_id UUID NOT NULL,
      old_values JSONB,
      new_values JSONB,
      reason TEXT,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS idx_pricing_audit_entity
      ON pricing_audit_logs (entity_type, entity_id);

    CREATE TABLE IF NOT EXISTS pricing_zones (
      id UUID PRIMARY KEY,
      city_id UUID,
      name VARCHAR(100) NOT NULL,
      zone_type VARCHAR(50) NOT NULL DEFAULT 'other',
      is_active BOOLEAN NOT NULL DEFAULT TRUE,
      created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now(),
      updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT now()
    );
    """)


def downgrade():
    _run("""
    DROP TABLE IF EXISTS pricing_zones;
    DROP TABLE IF EXISTS pricing_audit_logs;
    DROP TABLE IF EXISTS surge_thresholds;
    DROP TABLE IF EXISTS event_multipliers;
    DROP TABLE IF EXISTS weather_multipliers;
    DROP TABLE IF EXISTS time_multipliers;
    DROP TABLE IF EXISTS zone_fees;
    DROP TABLE IF EXISTS pricing_configs;
    DROP TABLE IF EXISTS pricing_config_versions;
    DROP TYPE IF EXISTS pricing_audit_action;
    DROP TYPE IF EXISTS pricing_version_status;
    """)
