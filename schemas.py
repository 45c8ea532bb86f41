"""
Database Schemas

Petzify domain models.
Each Pydantic model describes the documents of one MongoDB collection; the
collection name is given in the class docstring.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List, Dict

# Accounts

class Permissions(BaseModel):
    can_edit_contacts: bool = False
    can_manage_messages: bool = False
    can_manage_users: bool = False
    can_edit_profile: bool = False

class DoctorProfile(BaseModel):
    specialization: str = Field("General Veterinarian", description="Shown on prescriptions")
    experience: Optional[str] = None
    about: Optional[str] = None
    consultation_fee: Optional[float] = Field(None, ge=0)
    license_number: Optional[str] = None
    working_days: Dict[str, bool] = Field(
        default_factory=lambda: {
            "monday": True, "tuesday": True, "wednesday": True, "thursday": True,
            "friday": True, "saturday": False, "sunday": False,
        }
    )

class Admin(BaseModel):
    """
    Back-office accounts (staff, doctors, center owners)
    Collection: "admin"
    """
    name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    password_hash: str
    role: str = Field("editor", description="superadmin|admin|editor|doctor|boarding_admin|grooming_admin|assistant|moderator or a custom name")
    permissions: Permissions = Field(default_factory=Permissions)
    profile_info: Optional[DoctorProfile] = None
    center_id: Optional[str] = Field(None, description="Boarding/grooming center managed by this account")

class Customer(BaseModel):
    """
    Customer accounts of the public site
    Collection: "users"
    """
    name: str
    email: EmailStr
    phone: str = Field(..., pattern=r"^\d{10}$")
    password_hash: str
    otp_secret: Optional[str] = None

class Pet(BaseModel):
    """
    Pets registered by customers
    Collection: "pets"
    """
    user_id: str = Field(..., description="Owner email")
    name: str = Field(..., min_length=1)
    type: str
    breed: Optional[str] = None
    birth_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    gender: Optional[str] = None
    weight: Optional[str] = None
    color: Optional[str] = None
    microchip_number: Optional[str] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None

# Veterinary

class DoctorSlot(BaseModel):
    """
    One bookable interval of a doctor's day
    Collection: "doctorSlots"
    """
    doctor_id: str
    date: str = Field(..., description="YYYY-MM-DD")
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    is_booked: bool = False

class Appointment(BaseModel):
    """
    Vet appointments booked against a slot
    Collection: "appointments"
    """
    doctor_id: str
    doctor_name: Optional[str] = None
    slot_id: str
    patient_name: str
    patient_email: EmailStr
    patient_phone: str
    pet_name: Optional[str] = None
    pet_type: Optional[str] = None
    pet_breed: Optional[str] = None
    pet_age: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    appointment_date: str = Field(..., description="YYYY-MM-DD")
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    status: str = Field("pending", description="pending|confirmed|completed|cancelled")
    reminder_sent: bool = False

class Medication(BaseModel):
    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    frequency: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)

class Prescription(BaseModel):
    """
    Prescription PDFs attached to appointments
    Collection: "doctorPrescriptions"
    """
    appointment_id: str
    doctor_id: str = "unknown"
    doctor_name: str = "Unknown Doctor"
    patient_name: str = "Unknown Patient"
    patient_email: Optional[str] = None
    pet_name: str = "N/A"
    medications: List[Medication] = Field(default_factory=list)
    notes: Optional[str] = None
    prescription_url: str
    file_path: str
    type: str = Field("generated", description="generated|uploaded")

# Services

class GroomingCenter(BaseModel):
    """
    Self-registered grooming centers awaiting approval
    Collection: "groomingCenters"
    """
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: str = Field("salon", description="salon|mobile|home")
    phone: str = Field(..., min_length=1)
    email: EmailStr
    website: Optional[str] = None
    address: str = Field(..., min_length=1)
    city: Optional[str] = None
    services: List[str] = Field(default_factory=list, description="Headline services shown on the listing")
    facilities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    submitted_by: Optional[str] = Field(None, description="Email of the customer who registered the center")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    operating_hours: Dict[str, str] = Field(default_factory=dict, description="Day -> 'HH:MM-HH:MM'")
    status: str = Field("pending", description="pending|approved|rejected")
    admin_id: Optional[str] = None

class GroomingService(BaseModel):
    """
    Priced services a grooming center offers
    Collection: "groomingServices"
    """
    center_id: str
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    duration: int = Field(30, gt=0, description="Minutes")

class PackageService(BaseModel):
    id: str
    name: str
    price: float = Field(..., ge=0)

class GroomingPackage(BaseModel):
    """
    Bundles of a center's services sold at one price
    Collection: "groomingPackages"
    """
    center_id: str
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    services: List[PackageService] = Field(..., min_length=1)
    original_value: float = Field(..., ge=0, description="Sum of the bundled services' prices")
    discount_percentage: int = Field(0, ge=0, le=100)

class GroomingBooking(BaseModel):
    """
    Grooming appointments at partner centers
    Collection: "groomingBookings"
    """
    user_id: str
    user_name: Optional[str] = None
    user_email: EmailStr
    user_phone: Optional[str] = None
    center_id: str
    center_name: Optional[str] = None
    center_email: Optional[EmailStr] = None
    date: str = Field(..., description="YYYY-MM-DD")
    time: str = Field(..., description="HH:MM")
    pet_type: str
    pet_name: str
    pet_breed: Optional[str] = None
    pet_age: Optional[str] = None
    pet_weight: Optional[str] = None
    selected_services: List[str] = Field(default_factory=list)
    selected_package: Optional[str] = None
    special_instructions: Optional[str] = None
    total_cost: float = Field(..., ge=0)
    status: str = Field("pending", description="pending|confirmed|completed|cancelled")

class BoardingCenter(BaseModel):
    """
    Self-registered pet boarding centers awaiting approval
    Collection: "petBoardingCenters"
    """
    center_name: str = Field(..., min_length=1)
    owner_name: str
    phone_number: str
    email: EmailStr
    website: Optional[str] = None
    address: str
    city: str
    pincode: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    operating_days: Dict[str, bool] = Field(default_factory=dict)
    opening_time: Optional[str] = None
    closing_time: Optional[str] = None
    holiday_notice: Optional[str] = None
    pet_types_accepted: Dict[str, bool] = Field(default_factory=dict)
    pet_size_limit: List[str] = Field(default_factory=list)
    capacity: Optional[int] = Field(None, ge=0)
    pet_age_limit: Optional[str] = None
    services_offered: Dict[str, bool] = Field(default_factory=dict)
    per_day_charge: float = Field(..., ge=0)
    discounts: Optional[str] = None
    gallery_image_urls: List[str] = Field(default_factory=list)
    vaccination_required: bool = False
    pet_food_provided: bool = False
    pickup_drop_available: bool = False
    license_number: Optional[str] = None
    status: str = Field("pending", description="pending|approved|rejected")
    admin_id: Optional[str] = None

# Shop and content

class Specification(BaseModel):
    key: str
    value: str

class Product(BaseModel):
    """
    Shop catalog
    Collection: "products"
    """
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    category: str = Field(..., description="Food, Toys, Accessories, Grooming, Health, Clothing, Beds, Carriers, Training")
    stock: int = Field(0, ge=0)
    featured: bool = False
    images: List[str] = Field(default_factory=list, description="Public blob URLs")
    specifications: List[Specification] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)

class Order(BaseModel):
    """
    Shop orders
    Collection: "orders"
    """
    user_email: EmailStr
    user_name: Optional[str] = None
    phone: Optional[str] = None
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    shipping_address: Optional[str] = None
    status: str = Field("pending", description="pending|confirmed|dispatched|delivered|cancelled")

class Testimonial(BaseModel):
    """
    Customer testimonials shown on the home page
    Collection: "testimonials"
    """
    name: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    rating: int = Field(5, ge=1, le=5)
    image: Optional[str] = None
    file_name: Optional[str] = Field(None, description="Blob key of the image")

class Message(BaseModel):
    """
    Contact form submissions
    Collection: "messages"
    """
    name: str
    email: EmailStr
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str = Field(..., min_length=1)
    status: str = Field("unread", description="unread|read")

# Reviews

class AdminReply(BaseModel):
    text: str = Field(..., min_length=1)
    admin_name: Optional[str] = None
    center_name: Optional[str] = None
    replied_at: Optional[datetime] = None

class Review(BaseModel):
    """
    Customer ratings of products, boarding centers and grooming centers
    Collections: "productReviews", "boardingRatings", "groomingReviews"
    """
    target_id: str
    target_name: Optional[str] = None
    user_email: EmailStr
    user_name: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    order_id: Optional[str] = None
    booking_id: Optional[str] = None
    admin_reply: Optional[AdminReply] = None
