"""
Custom exceptions for the lvBridge sync engine

Every error carries the pipeline stage that raised it, and a ``retryable``
flag the retry policy reads when deciding whether to try again.
"""

from typing import Optional


class LvBridgeError(Exception):
    """Base exception for bridge errors"""
    retryable = False

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self):
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class ConfigurationError(LvBridgeError):
    """Exception for missing or inconsistent configuration"""
    pass


class MissingSubjectId(ConfigurationError):
    """A managing (practice) account did not name the patient to sync"""
    pass


class CredentialFetchError(ConfigurationError):
    """The remote credential bundle was malformed or lacked the configured key"""
    pass


class ProtocolError(LvBridgeError):
    """Exception for unexpected response shapes from the vendor API"""
    pass


class NotAVendorServer(ProtocolError):
    """The capability probe did not return the LibreView API marker header"""
    pass


class LoginRejected(ProtocolError):
    """Exception for authentication failures"""
    pass


class NoReportSettings(ProtocolError):
    """Report settings (data sources) could not be retrieved"""
    pass


class NoPrimaryDevice(ProtocolError):
    """No device with recent data exists for the patient"""
    pass


class ReportRequestFailed(ProtocolError):
    """The report generation request was refused"""
    pass


class NoChannelAvailable(ProtocolError):
    """The polling URL did not hand out a long-poll channel"""
    pass


class ReportPollFailed(ProtocolError):
    """The completion channel answered with an unexpected operation"""

    def __init__(self, message: str, stage: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, stage)
        self.operation = operation


class NoDataReceived(ProtocolError):
    """The downloaded report did not embed the expected data object"""
    pass


class ReportParseError(ProtocolError):
    """The embedded report data was not valid JSON"""
    pass


class TransientError(LvBridgeError):
    """Base exception for conditions that clear up on a later attempt"""
    retryable = True


class RedirectReceived(TransientError):
    """The server asked us to log in against another regional host"""

    def __init__(self, server: str, stage: Optional[str] = None):
        super().__init__(f"redirected to {server}", stage)
        self.server = server


class ReportStillGenerating(TransientError):
    """The report job has started but is not finished yet"""
    pass


class APIConnectionError(TransientError):
    """Exception for API connection problems"""
    pass


class UploadError(LvBridgeError):
    """Exception for rejected uploads to the dashboard"""
    pass
