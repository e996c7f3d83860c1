"""Runtime knobs read from the `[custom]` section of domain.toml."""

from protean.utils.globals import current_domain

DEFAULTS = {
    "CANCELLATION_WINDOW_MINUTES": 30,
    "DEFAULT_LATE_PENALTY_RATE": 1.0,
    "REMINDER_LEAD_DAYS": 3,
    "PENALTY_SWEEP_INTERVAL_SECONDS": 3600,
}


def setting(name: str):
    """Return a custom setting, falling back to the built-in default."""
    custom = {}
    if current_domain:
        custom = current_domain.config.get("custom") or {}
    return custom.get(name, DEFAULTS[name])
