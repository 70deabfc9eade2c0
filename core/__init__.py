"""
Core Package

Contains the exchange-agnostic plumbing shared by every layer:
- config: Settings loaded from the environment, including signing credentials
- errors: The relay's error taxonomy (configuration, validation, transport, remote)
- schemas: Pydantic models for credentials, candle updates, orders and bot control
- logging: Application logger and log helpers
"""
