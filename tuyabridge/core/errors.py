"""Domain-specific errors for tuyabridge."""


class BridgeError(Exception):
    """Base error for tuyabridge."""


class ConfigValidationError(BridgeError):
    """Raised when a config file does not conform to schema or semantics."""


class ConfigLoadError(BridgeError):
    """Raised when reading the config file fails."""


class DeviceSelectionError(BridgeError):
    """Raised when a device id or name cannot be resolved from the config."""


class ExpressionError(ConfigValidationError):
    """Raised when a transform expression uses anything but safe arithmetic."""


class UnsupportedTopic(BridgeError):
    """Raised when a topic is not present on this device."""


class ProbeInconclusive(BridgeError):
    """Raised when capability inference cannot identify the device layout."""


class TransformOutOfRange(BridgeError):
    """Public value outside its declared range; reported, then clamped."""


class UnknownSelector(BridgeError):
    """Named color/scene not found; reported, then treated as 'next'."""


class ColorDecodeError(BridgeError):
    """Raised when a native color payload cannot be parsed."""


class CommandError(BridgeError):
    """Raised when a bus command payload cannot be translated."""


class DeviceNotActive(BridgeError):
    """Raised when a command reaches a device that has not been activated."""


class DeviceRPCError(BridgeError):
    """Raised by device RPC collaborators on get/set failures."""
