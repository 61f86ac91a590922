"""Describes the PortionPerfect domain. Centres around the `Order`.

A cook asks for a dish, gets a scaled recipe and a shopping list split by
shop type, and sends part of that list to a nearby shop. The shop owner
works the order through pending, accepted or rejected, and completed.

Where is the hard part?

- Recipe creation sits behind an LLM api, geocoding behind another.
  Both can be faked.
- The order status machine is the only real invariant.
- Customer and owner both watch the same orders live, so every write has to
  land in the store before anyone believes it.
"""
