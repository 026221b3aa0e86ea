"""
Trivia Monitor - real-time terminal dashboard for the trivia services.

Architecture:
- providers.py: payload and result types (immutable snapshots)
- sources.py / fetcher.py: per-source pollers and the concurrent fan-out
- frame.py / ansi.py: sections that turn a snapshot into text lines
- renderer.py: diff renderer that rewrites only changed lines
- keyboard.py / commands.py: raw key input and key bindings
- loop.py: the cooperative run loop and its shutdown sequence
- app.py: alternative Textual front-end

Extensibility points:
1. New sources: implement the Source protocol and add to build_sources()
2. New sections: implement produce_lines() and add to the FrameBuilder
3. New keys: register an action in CommandTable
"""
