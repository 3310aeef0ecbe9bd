from .errors import CandidatesExhaustedError, EmptyOutputError, InvocationCancelledError, InvocationError, is_transient_error
from .invoker import ResilientInvoker, RetryPolicy, backoff_delay, resilient_invoke
from .models import Attachment, AttemptOutcome, AttemptRecord, InvocationRequest
