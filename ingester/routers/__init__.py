"""HTTP routers served alongside the consumer."""
