"""Domain services: ordering, billing, menus, carts, tenants and the live order feed."""
