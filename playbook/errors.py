class PlaybookError(Exception):
    """Base class for errors that terminate a chain deployment run."""


class PreconditionError(PlaybookError):
    """Raised before any side effect when the run cannot start."""


class ProvisioningError(PlaybookError):
    """Raised when the node account keys cannot be generated."""


class FundingError(PlaybookError):
    """Raised when a funding transfer fails; later transfers are not attempted."""


class DeploymentError(PlaybookError):
    """Raised when the rollup creation transaction fails or reverts."""


class DecodingError(PlaybookError):
    """
    Raised when a transaction or receipt does not have the rollup creation shape.
    This usually means the hash is wrong or the factory version is unsupported.
    """


class RPCError(PlaybookError):
    """Raised when the parent chain node cannot be queried."""


class ArtifactError(PlaybookError):
    """Raised when the node config artifact cannot be written."""


class ParamsFileError(ValueError):
    pass
