"""modules/llm — Optional language-model delegation."""
