"""OrganFlow: organ donation lifecycle tracking backend."""
