"""Web UI for imgstudio (Gradio)."""
