"""
Failure kinds of the preview pipeline.

Fatal kinds (FetchError, QuantizeError, EncodeError) end the job in the
failed state; ProbeError and AnalyzeError only degrade the recorded metadata
or waveform. TriggerValidationError means the event is ignored.
"""


class PipelineError(Exception):
    fatal = True


class TriggerValidationError(PipelineError):
    fatal = False


class FetchError(PipelineError):
    pass


class ProbeError(PipelineError):
    fatal = False


class QuantizeError(PipelineError):
    pass


class EncodeError(PipelineError):
    pass


class AnalyzeError(PipelineError):
    fatal = False


class PublishError(PipelineError):
    pass
