"""Sub-controllers and the composer that orders them."""
