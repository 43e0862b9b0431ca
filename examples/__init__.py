"""
soft-deletable Examples

Available Examples:
------------------

soft_delete_example.py
    Blog posts with comments (timestamp markers, cascading restore) and
    orders with items (boolean markers).

Running Examples:
----------------

    python examples/soft_delete_example.py
"""

EXAMPLES = {
    "basic": ["soft_delete_example.py - Deleting, reading and restoring"],
}


def list_examples():
    """Print available examples by category."""
    print("soft-deletable Examples")
    print("=" * 50)

    for category, examples in EXAMPLES.items():
        if examples:
            print(f"\n{category.title()}:")
            for example in examples:
                print(f"  - {example}")


if __name__ == "__main__":
    list_examples()
