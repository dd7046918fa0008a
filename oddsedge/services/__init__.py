"""Business services: odds feed client, collection pipeline and edge analysis."""
