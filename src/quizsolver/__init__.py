"""Poll-log quiz runner with language-model grading."""
