"""Terminal dashboard built on Textual."""
