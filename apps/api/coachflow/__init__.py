"""Client program lifecycle engine for the nutrition coaching platform."""
