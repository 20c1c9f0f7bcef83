"""pointsquote: loyalty points quoting for airline fares."""
