from chatwire.streaming.decoder import DecoderState, StreamDecoder
from chatwire.streaming.extractor import extract_content
from chatwire.streaming.metrics import Metrics, MetricsCell

__all__ = ['DecoderState', 'Metrics', 'MetricsCell', 'StreamDecoder', 'extract_content']
