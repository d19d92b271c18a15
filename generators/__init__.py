"""Text generation: model client, prompt templates and fact extraction."""
