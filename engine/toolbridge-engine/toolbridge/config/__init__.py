from .credentials import ExternalCredential, GoogleOAuthCredential, ToolCredentials

__all__ = ["ExternalCredential", "GoogleOAuthCredential", "ToolCredentials"]
