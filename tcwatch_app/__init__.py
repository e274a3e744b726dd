# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

__version__ = "1.0.0"
