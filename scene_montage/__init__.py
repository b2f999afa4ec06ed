"""scene_montage: assembles narrated image scenes into a single video.

Scenes (an image held for the length of its narration) are rendered to
uniform clips, concatenated, optionally mixed with looped background music
and burned-in subtitles, and uploaded to a blob container together with a
JSON status record.
"""
