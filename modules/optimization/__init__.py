"""modules/optimization — Reward signal and RL metrics."""
