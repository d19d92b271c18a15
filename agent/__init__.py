"""Model-directed research: tool definitions, executor and the bounded tool-calling loop."""
