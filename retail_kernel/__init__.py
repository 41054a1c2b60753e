"""
Retail Kernel

The transactional core of a retail back office:
- Per product/color/size stock cells that never go negative
- Atomic checkout (stock reservation + order + financial mirror + invoice number)
- Line edits that replay exact stock deltas
- A fulfillment state machine with exactly-once completion
"""

__version__ = "0.1.0"
