"""
Exchange Connectors Package

Each exchange has its own subfolder with:
- api_client.py: Signed REST logic
- ws_client.py: WebSocket streaming logic
"""
