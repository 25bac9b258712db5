# RouteInspectionEmail Lambda
"""
Routes inbound inspection emails.

Triggered by SNS when SES receives mail for the router.
Archives ComplianceGo reports to SharePoint and forwards every email.
"""
