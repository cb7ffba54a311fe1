"""Automations: trigger -> condition -> action rules run on domain events."""
