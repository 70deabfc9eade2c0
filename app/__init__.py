"""
FastAPI Application Package

Entry point for the relay's HTTP surface: bot control and trading routes
that call into the signed REST client and the subscription manager.
"""
