"""Service declarations: functions, identities, permissions and IAM roles."""
