# Test fixtures for Snapback
from tests.fixtures.media_samples import (
    MINIMAL_MP4 as MINIMAL_MP4,
    image_bytes as image_bytes,
    overlay_bytes as overlay_bytes,
    write_media_file as write_media_file,
)
from tests.fixtures.generators import (
    create_snapchat_memories_export as create_snapchat_memories_export,
    memory_entry as memory_entry,
    write_memories_history as write_memories_history,
)
from tests.fixtures.doubles import (
    FakeCompositor as FakeCompositor,
    RecordingApplier as RecordingApplier,
)
