"""Custom exception hierarchy."""


class BannerGenError(Exception):
    """Base for every project exception."""


class ConfigurationError(BannerGenError):
    """Invalid or missing configuration."""


class ProfileError(BannerGenError):
    """Brand profile is unreadable or violates its schema."""


class UnknownTemplateError(BannerGenError):
    """No template is registered under the requested id."""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Unknown template: {template_id}")
        self.template_id = template_id


class StoreError(BannerGenError):
    """Persisted state could not be read or written."""


class ConcurrencyConflict(StoreError):
    """A check-and-set write lost against a concurrent writer."""


class SessionNotFoundError(BannerGenError):
    """A/B session id does not exist for the tenant."""


class ChoiceNotFoundError(BannerGenError):
    """Chosen candidate id is not part of the session."""


class InvalidMetricsError(BannerGenError):
    """Impression / click counts are negative or inconsistent."""
