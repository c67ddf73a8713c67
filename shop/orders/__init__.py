"""Order placement: engine, stores, service layer and HTTP endpoints."""
