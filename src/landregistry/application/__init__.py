"""
Application layer (use-cases and orchestration).

- ports: interfaces decoupling the workflows from infrastructure
- registries: the parcel registry
- workflows: application lifecycle and certificate issuance
- engine: the facade wiring everything together
"""
