"""boto3-backed implementations of the external service interfaces."""
