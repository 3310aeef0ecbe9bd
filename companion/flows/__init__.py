from .advice import analyze_snapshot_image, generate_companion_advice, generate_snapshot_advice
from .extract_grades import extract_grades
from .visual_aid import generate_visual_aid, svg_to_data_uri
