class RewardsError(Exception):
    """Base error for the rewards domain. Carries the HTTP status the API maps it to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RewardValidationError(RewardsError):
    status_code = 400


class RewardAuthorizationError(RewardsError):
    status_code = 403


class RewardNotFoundError(RewardsError):
    status_code = 404


class RewardStateError(RewardsError):
    """The request was well formed but the current state does not permit it."""

    status_code = 400


class ExternalDependencyError(RewardsError):
    """Chain RPC or database failure the operation depends on."""

    status_code = 502


class ConfigurationError(RewardsError):
    status_code = 500
