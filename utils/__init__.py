from utils.exceptions import (
    BannerGenError,
    ChoiceNotFoundError,
    ConcurrencyConflict,
    ConfigurationError,
    InvalidMetricsError,
    ProfileError,
    SessionNotFoundError,
    StoreError,
    UnknownTemplateError,
)
from utils.log_config import get_logger
from utils.retry import retry
