"""Matrix client adapter built on matrix-nio."""
