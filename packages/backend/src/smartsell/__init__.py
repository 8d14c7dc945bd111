"""SmartSell: marketplace listings backend.

Sellers publish listings; buyers browse them. Every listing carries live
view/share/click counters that are pushed to interested clients over a
WebSocket and can always be re-read over plain HTTP.
"""

__version__ = "0.1.0"
