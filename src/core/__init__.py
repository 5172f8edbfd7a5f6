"""Core domain package for logsbot.

Core contains the notification gate, delivery and polling supervision logic
without any socket or HTTP specific code, keeping the business logic portable.
"""
