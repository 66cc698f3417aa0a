"""HTTP surfaces: REST blueprints, GraphQL schema, docs, health."""
