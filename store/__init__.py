# =============================================================================
# SAAS FINMODEL - STORE PACKAGE
# =============================================================================
# Persistence layer: owner-scoped gateways, effect execution and debounced
# writes. Nothing in models/ imports from here.
#
# Modules:
# - gateway: Abstract gateway contract and the in-memory backend
# - yaml_gateway: One YAML document per owner on local disk
# - sync: Executes reducer effects against a gateway
# - debounce: Coalesces rapid cell writes
# =============================================================================
