"""
Event Topics for ratiosplit

All pub/sub topics are defined here for easy discovery.
Topic naming convention: <category>.<action>
"""

# Window lifecycle events
WINDOW_CREATED = "window.created"
"""Published for every new window reported by i3. Params: event (WindowCreatedEvent)"""


# Layout events
LAYOUT_ADJUSTED = "layout.adjusted"
"""Published after a new window was split and resized. Params: event, decision"""
