from .exporter import FrameExporter, frame_filename

__all__ = ["FrameExporter", "frame_filename"]
