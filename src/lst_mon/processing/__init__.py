from .cloud_mask import qa_cloud_mask, mask_clouds
from .thermal import dn_to_celsius, derive_lst
