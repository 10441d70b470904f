from app.models.content import ContentFile, ContentChunk
from app.models.material import Material
from app.models.study_user import StudyUser, DownloadRecord

__all__ = ["ContentFile", "ContentChunk", "Material", "StudyUser", "DownloadRecord"]
