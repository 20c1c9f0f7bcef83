"""Domain Models: value objects, entities and errors of the quote domain."""
