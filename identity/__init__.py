"""Identity enrollment and matching for the face attendance engine."""
from .distance import DimensionMismatch, as_embedding, euclidean_distance, similarity_percent
from .identity_store import DuplicateName, Identity, IdentityNotFound, IdentityStore
from .uniqueness_guard import AlreadyRegistered, NoMatch, UniquenessGuard, check_uniqueness
from .identity_matcher import BestMatch, Identification, IdentityMatcher, NoIdentitiesEnrolled
from .enrollment import EnrollmentSession, EnrollmentState, EnrollmentStatus, EnrollmentStep
from .security_log import SecurityEvent, SecurityLog

__all__ = [
    'DimensionMismatch', 'as_embedding', 'euclidean_distance', 'similarity_percent',
    'DuplicateName', 'Identity', 'IdentityNotFound', 'IdentityStore',
    'AlreadyRegistered', 'NoMatch', 'UniquenessGuard', 'check_uniqueness',
    'BestMatch', 'Identification', 'IdentityMatcher', 'NoIdentitiesEnrolled',
    'EnrollmentSession', 'EnrollmentState', 'EnrollmentStatus', 'EnrollmentStep',
    'SecurityEvent', 'SecurityLog',
]
